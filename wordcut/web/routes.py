"""Web API routes for WordCut."""

import json
import logging
import queue
import threading
import uuid
from dataclasses import replace
from pathlib import Path

from flask import (
    Blueprint,
    Response,
    current_app,
    jsonify,
    request,
    send_file,
)

from wordcut.engine import export_video, load_video, transcribe_video
from wordcut.errors import EmptyTranscriptError, ReadinessError, ToolExecutionError, ValidationError
from wordcut.manifest import parse_export_settings
from wordcut.models import TimeRange
from wordcut.session import EditSession

logger = logging.getLogger(__name__)

bp = Blueprint("web", __name__)

# In-memory job store: job_id -> job dict
_jobs: dict[str, dict] = {}
_claim_lock = threading.Lock()

BUSY_STATES = ("transcribing", "exporting")

ERROR_STATUS = {
    ValidationError: 400,
    EmptyTranscriptError: 422,
    ReadinessError: 503,
    ToolExecutionError: 500,
}


def _error_status(e: Exception) -> int:
    for kind, status in ERROR_STATUS.items():
        if isinstance(e, kind):
            return status
    return 500


def _get_job(job_id: str) -> dict | None:
    return _jobs.get(job_id)


def _not_found():
    return jsonify({"error": "Job not found"}), 404


def _transcript_state(job: dict) -> tuple[EditSession | None, list]:
    """Session and words of a job, read together."""
    with _claim_lock:
        return job.get("session"), job.get("words") or []


def _session_summary(session: EditSession, words: list) -> dict:
    return {
        "deleted_ranges": [{"start": r.start, "end": r.end} for r in session.deleted_ranges],
        "deleted_words": session.deleted_word_count(words),
        "remaining_duration": session.remaining_duration(),
        "status_message": session.status_line(),
    }


def _claim(job: dict, status: str) -> bool:
    """Mark the job busy unless another operation already holds it."""
    with _claim_lock:
        if job["status"] in BUSY_STATES:
            return False
        job["status"] = status
        job["error"] = None
        return True


def _run_in_background(job: dict, status: str, work) -> None:
    """Run ``work(on_progress)`` on the job's single worker thread."""
    progress_queue: queue.Queue = queue.Queue()
    job["progress_queue"] = progress_queue

    def run():
        try:
            def on_progress(stage: str, frac: float):
                progress_queue.put({"stage": stage, "progress": round(frac, 3)})

            work(on_progress)
        except Exception as e:
            logger.exception("Job %s failed while %s", job["id"], status)
            job["status"] = "error"
            job["error"] = str(e)
            job["error_status"] = _error_status(e)
        finally:
            progress_queue.put(None)  # sentinel

    threading.Thread(target=run, daemon=True).start()


@bp.route("/api/upload", methods=["POST"])
def upload():
    if "file" not in request.files:
        return jsonify({"error": "No file provided"}), 400

    f = request.files["file"]
    if not f.filename:
        return jsonify({"error": "Empty filename"}), 400

    job_id = uuid.uuid4().hex[:12]
    job_dir = Path(current_app.config["WORK_DIR"]) / job_id
    job_dir.mkdir(parents=True, exist_ok=True)

    ext = Path(f.filename).suffix or ".mp4"
    input_path = job_dir / f"input{ext}"
    f.save(input_path)

    _jobs[job_id] = {
        "id": job_id,
        "dir": job_dir,
        "input_path": input_path,
        "filename": f.filename,
        "status": "uploaded",
    }

    return jsonify({"job_id": job_id, "filename": f.filename})


@bp.route("/api/jobs/<job_id>/transcribe", methods=["POST"])
def start_transcription(job_id: str):
    job = _get_job(job_id)
    if job is None:
        return _not_found()

    body = request.get_json(silent=True) or {}
    config = current_app.config["TRANSCRIPTION"]
    language = str(body.get("language", "")).strip() or config.language
    config = replace(config, language=language)
    tools = current_app.config["TOOLS"]
    if not _claim(job, "transcribing"):
        return jsonify({"error": f"Job is already {job['status']}"}), 409

    def work(on_progress):
        video = load_video(job["input_path"], tools)
        words = transcribe_video(video, config, tools=tools, on_progress=on_progress)
        session = EditSession(video.duration)
        with _claim_lock:
            job.update(video=video, words=words, session=session, status="ready")

    _run_in_background(job, "transcribing", work)
    return jsonify({"status": "started"})


@bp.route("/api/jobs/<job_id>/transcript")
def get_transcript(job_id: str):
    job = _get_job(job_id)
    if job is None:
        return _not_found()
    session, transcript = _transcript_state(job)
    if session is None:
        return jsonify({"error": "No transcript yet"}), 409

    words = [
        {
            "index": i,
            "word": w.text,
            "start": w.start,
            "end": w.end,
            "confidence": w.confidence,
            "deleted": session.is_word_deleted(w),
        }
        for i, w in enumerate(transcript)
    ]
    return jsonify({"words": words, **_session_summary(session, transcript)})


@bp.route("/api/jobs/<job_id>/deletions", methods=["POST"])
def add_deletion(job_id: str):
    job = _get_job(job_id)
    if job is None:
        return _not_found()
    session, words = _transcript_state(job)
    if session is None:
        return jsonify({"error": "No transcript yet"}), 409

    body = request.get_json(silent=True) or {}
    try:
        if "word_index" in body:
            session.delete_word(words, int(body["word_index"]))
        elif "start_index" in body and "end_index" in body:
            session.delete_word_span(words, int(body["start_index"]), int(body["end_index"]))
        elif "start" in body and "end" in body:
            start, end = float(body["start"]), float(body["end"])
            if end < start:
                raise ValueError("end before start")
            session.add_deletion(TimeRange(start=start, end=end))
        else:
            return jsonify({"error": "Provide word_index, start_index/end_index or start/end"}), 400
    except (TypeError, ValueError) as e:
        return jsonify({"error": f"Invalid deletion: {e}"}), 400

    return jsonify(_session_summary(session, words))


@bp.route("/api/jobs/<job_id>/undo", methods=["POST"])
def undo_deletion(job_id: str):
    job = _get_job(job_id)
    if job is None:
        return _not_found()
    session, words = _transcript_state(job)
    if session is None:
        return jsonify({"error": "No transcript yet"}), 409
    session.undo_last()
    return jsonify(_session_summary(session, words))


@bp.route("/api/jobs/<job_id>/clear", methods=["POST"])
def clear_deletions(job_id: str):
    job = _get_job(job_id)
    if job is None:
        return _not_found()
    session, words = _transcript_state(job)
    if session is None:
        return jsonify({"error": "No transcript yet"}), 409
    session.clear()
    return jsonify(_session_summary(session, words))


@bp.route("/api/jobs/<job_id>/export", methods=["POST"])
def start_export(job_id: str):
    job = _get_job(job_id)
    if job is None:
        return _not_found()
    session, _ = _transcript_state(job)
    if session is None:
        return jsonify({"error": "No transcript yet"}), 409

    try:
        settings = parse_export_settings(request.get_json(silent=True) or {})
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    if not session.kept_ranges():
        return jsonify({"error": "No video content left after deletions."}), 400

    deleted = session.deleted_ranges
    output_dir = job["dir"] / "exports"
    tools = current_app.config["TOOLS"]
    if not _claim(job, "exporting"):
        return jsonify({"error": f"Job is already {job['status']}"}), 409

    def work(on_progress):
        result = export_video(
            job["video"], deleted, settings, output_dir, tools=tools, on_progress=on_progress
        )
        job["result"] = {
            "output_path": str(result.output_path),
            "duration_original": result.duration_original,
            "duration_final": result.duration_final,
            "attempts": result.attempts,
        }
        job["status"] = "done"

    _run_in_background(job, "exporting", work)
    return jsonify({"status": "started"})


@bp.route("/api/jobs/<job_id>/progress")
def progress_stream(job_id: str):
    job = _get_job(job_id)
    if job is None:
        return _not_found()

    q = job.get("progress_queue")
    if q is None:
        return jsonify({"error": "No processing in progress"}), 409

    def generate():
        while True:
            try:
                msg = q.get(timeout=120)
            except queue.Empty:
                yield "data: {\"error\": \"timeout\"}\n\n"
                break
            if msg is None:
                if job["status"] == "error":
                    data = json.dumps({"error": job["error"]})
                else:
                    data = json.dumps({
                        "stage": "complete",
                        "progress": 1.0,
                        "result": job.get("result"),
                    })
                yield f"data: {data}\n\n"
                break
            yield f"data: {json.dumps(msg)}\n\n"

    return Response(generate(), mimetype="text/event-stream")


@bp.route("/api/jobs/<job_id>/result")
def download_result(job_id: str):
    job = _get_job(job_id)
    if job is None:
        return _not_found()
    if job["status"] != "done":
        return jsonify({"error": "Job not complete"}), 409

    output_path = Path(job["result"]["output_path"])
    return send_file(output_path, as_attachment=False)


@bp.route("/api/jobs/<job_id>/status")
def job_status(job_id: str):
    job = _get_job(job_id)
    if job is None:
        return _not_found()

    resp = {"status": job["status"], "filename": job.get("filename")}
    if "words" in job:
        resp["word_count"] = len(job["words"])
    if job["status"] == "done":
        resp["result"] = job.get("result")
    if job["status"] == "error":
        resp["error"] = job.get("error")
        resp["error_status"] = job.get("error_status")
    return jsonify(resp)
