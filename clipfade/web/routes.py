"""Web API routes for ClipFade."""

import json
import logging
import queue
import threading
import uuid
from pathlib import Path

from flask import Blueprint, Response, current_app, jsonify, request, send_file

from clipfade.engine import merge_clips
from clipfade.ffutil import EngineError
from clipfade.manifest import MergeManifest, TransitionConfig

logger = logging.getLogger(__name__)

bp = Blueprint("web", __name__)

# In-memory job store: job_id -> job dict
_jobs: dict[str, dict] = {}


def _job_or_404(job_id: str):
    job = _jobs.get(job_id)
    if job is None:
        return None, (jsonify({"error": "Job not found"}), 404)
    return job, None


@bp.route("/api/jobs", methods=["POST"])
def create_job():
    job_id = uuid.uuid4().hex[:12]
    job_dir = Path(current_app.config["WORK_DIR"]) / job_id
    job_dir.mkdir(parents=True, exist_ok=True)

    _jobs[job_id] = {
        "dir": job_dir,
        "clips": [],
        "filenames": [],
        "status": "created",
    }
    return jsonify({"job_id": job_id})


@bp.route("/api/jobs/<job_id>/clips", methods=["POST"])
def upload_clip(job_id: str):
    job, err = _job_or_404(job_id)
    if err:
        return err
    if job["status"] == "merging":
        return jsonify({"error": "Job is already merging"}), 409

    if "file" not in request.files:
        return jsonify({"error": "No file provided"}), 400

    f = request.files["file"]
    if not f.filename:
        return jsonify({"error": "Empty filename"}), 400

    index = len(job["clips"])
    ext = Path(f.filename).suffix or ".mp4"
    clip_path = job["dir"] / f"clip{index:03d}{ext}"
    f.save(clip_path)

    job["clips"].append(clip_path)
    job["filenames"].append(f.filename)
    job["status"] = "uploaded"

    return jsonify({"job_id": job_id, "index": index, "filename": f.filename})


@bp.route("/api/jobs/<job_id>/merge", methods=["POST"])
def start_merge(job_id: str):
    job, err = _job_or_404(job_id)
    if err:
        return err

    if job["status"] == "merging":
        return jsonify({"error": "Job is already merging"}), 409
    if len(job["clips"]) < 2:
        return jsonify({"error": "Upload at least two clips before merging"}), 409

    config = request.get_json(silent=True) or {}
    strict = config.get("strict", False)
    if not isinstance(strict, bool):
        return jsonify({"error": "strict must be true or false"}), 400
    try:
        transition = TransitionConfig(
            fade_duration=float(config.get("fade_duration", 1.0)),
            kind=str(config.get("transition", "fade")),
            strict=strict,
        )
    except (TypeError, ValueError):
        return jsonify({"error": "fade_duration must be a number"}), 400

    ext = job["clips"][0].suffix
    manifest = MergeManifest(
        inputs=list(job["clips"]),
        output=job["dir"] / f"merged{ext}",
        transition=transition,
        engine=current_app.config["ENGINE"],
    )

    progress_queue: queue.Queue = queue.Queue()
    job["progress_queue"] = progress_queue
    job["status"] = "merging"
    job["error"] = None

    def run():
        try:
            def on_progress(stage: str, frac: float):
                progress_queue.put({"stage": stage, "progress": round(frac, 3)})

            result = merge_clips(manifest, on_progress=on_progress)
            job["result"] = {
                "output_path": str(result.output_path),
                "clips": len(result.clips),
                "duration_estimate": result.duration_estimate,
                "offsets": result.plan.offsets if result.plan else [],
            }
            job["status"] = "done"
        except (EngineError, ValueError) as e:
            job["status"] = "error"
            job["error"] = str(e)
        except Exception as e:
            logger.exception("Merge job %s failed", job_id)
            job["status"] = "error"
            job["error"] = str(e)
        finally:
            progress_queue.put(None)  # sentinel

    threading.Thread(target=run, daemon=True).start()
    return jsonify({"status": "started"})


def _event(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def _final_event(job: dict) -> str:
    if job["status"] == "error":
        return _event({"error": job["error"]})
    return _event({"stage": "complete", "progress": 1.0, "result": job.get("result")})


@bp.route("/api/jobs/<job_id>/progress")
def progress_stream(job_id: str):
    job, err = _job_or_404(job_id)
    if err:
        return err

    q = job.get("progress_queue")
    if q is None:
        return jsonify({"error": "No merge in progress"}), 409

    timeout = current_app.config["PROGRESS_TIMEOUT"]

    def generate():
        # Progress messages until the worker's None sentinel, then one final event.
        try:
            for msg in iter(lambda: q.get(timeout=timeout), None):
                yield _event(msg)
        except queue.Empty:
            yield _event({"error": "timeout"})
            return
        yield _final_event(job)

    return Response(generate(), mimetype="text/event-stream")


@bp.route("/api/jobs/<job_id>/result")
def download_result(job_id: str):
    job, err = _job_or_404(job_id)
    if err:
        return err

    if job["status"] != "done":
        return jsonify({"error": "Job not complete"}), 409

    output_path = Path(job["result"]["output_path"])
    return send_file(output_path, as_attachment=False)


@bp.route("/api/jobs/<job_id>/status")
def job_status(job_id: str):
    job, err = _job_or_404(job_id)
    if err:
        return err

    resp = {"status": job["status"], "filenames": job["filenames"]}
    if job["status"] == "done":
        resp["result"] = job.get("result")
    if job["status"] == "error":
        resp["error"] = job.get("error")
    return jsonify(resp)
