# server.py
from fastapi import FastAPI, UploadFile, File, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from pathlib import Path
from datetime import datetime
import logging
import shutil
import os
import threading
import time

from canvas import load_image
from emit import artifact_paths, encode_to_string, write_bin_file, write_go_file
from epd_bitmap import PROFILES, PROG, image_to_bytes
from epd_errors import ConversionError, DecodeError, InputError

LOGGER = logging.getLogger(__name__)

BASE_DIR = Path(os.getenv("EPD_BITMAP_DATA_DIR", Path(__file__).resolve().parent))

GENERATOR = f"{PROG} server"

_ERROR_STATUS = (
    (InputError, 400),
    (DecodeError, 422),
)


def _status_for(exc: ConversionError) -> int:
    for cls, status in _ERROR_STATUS:
        if isinstance(exc, cls):
            return status
    return 500


def create_app(base_dir: Path = BASE_DIR) -> FastAPI:
    app = FastAPI()

    in_dir = Path(base_dir) / "inbox"
    out_dir = Path(base_dir) / "server_files"
    in_dir.mkdir(parents=True, exist_ok=True)
    out_dir.mkdir(parents=True, exist_ok=True)

    # inbox/latest.* and the output files are shared between uploads
    lock = threading.Lock()

    def convert_upload(profile: str, file: UploadFile) -> bytes:
        """Store the upload as inbox/latest.*, convert it and swap in the new outputs."""
        ts = datetime.now().strftime("%Y%m%d_%H%M%S_%f")

        # format is sniffed from the bytes, the suffix is only cosmetic
        saved_path = in_dir / ("latest" + Path(file.filename or "").suffix.lower())

        go_path, bin_path = artifact_paths(out_dir, profile)
        tmp_go, tmp_bin = artifact_paths(out_dir, f".{profile}.{ts}.tmp")

        with lock:
            with saved_path.open("wb") as f:
                shutil.copyfileobj(file.file, f)

            # latest 以外を消す
            for p in in_dir.glob("*"):
                if p.name != saved_path.name:
                    p.unlink()

            try:
                width, height = PROFILES[profile]
                data = image_to_bytes(load_image(saved_path), width, height)
                write_go_file(tmp_go, profile, data, GENERATOR)
                write_bin_file(tmp_bin, data)
                os.replace(tmp_go, go_path)
                os.replace(tmp_bin, bin_path)  # atomic update
            except ConversionError:
                for tmp in (tmp_go, tmp_bin):
                    if tmp.exists():
                        tmp.unlink()
                raise
        return data

    # =========================
    # 画像アップロード → 変換
    # =========================
    @app.post("/upload/{profile}")
    async def upload_image(profile: str, file: UploadFile = File(...)):

        if profile not in PROFILES:
            raise HTTPException(status_code=400, detail=f"unknown profile {profile}")

        if not file.content_type or not file.content_type.startswith("image/"):
            raise HTTPException(status_code=400, detail="image file only")

        # 変換は重いのでイベントループの外で実行
        try:
            data = await run_in_threadpool(convert_upload, profile, file)
        except ConversionError as e:
            LOGGER.error("Upload for %s failed: %s", profile, e)
            raise HTTPException(status_code=_status_for(e), detail=f"convert failed: {e}")

        _go_path, bin_path = artifact_paths(out_dir, profile)
        LOGGER.info("Updated %s (%d bytes)", bin_path.name, len(data))
        return JSONResponse({
            "ok": True,
            "profile": profile,
            "bin": bin_path.name,
            "size_bytes": len(data),
            "base64": encode_to_string(data),
        })

    # =========================
    # ヘルスチェック
    # =========================
    @app.get("/health")
    def health():
        return {"ok": True, "status": "running"}

    # =========================
    # 最終更新情報（デバッグ用）
    # =========================
    @app.get("/meta/{profile}")
    def meta(profile: str):
        if profile not in PROFILES:
            raise HTTPException(status_code=404, detail=f"unknown profile {profile}")

        _go_path, bin_path = artifact_paths(out_dir, profile)
        if not bin_path.exists():
            return {
                "exists": False,
                "message": f"{bin_path.name} not generated yet"
            }

        stat = bin_path.stat()
        return {
            "exists": True,
            "filename": bin_path.name,
            "size_bytes": stat.st_size,
            "last_updated_unix": stat.st_mtime,
            "last_updated_readable": time.ctime(stat.st_mtime)
        }

    # =========================
    # デバイス用：<profile>.bin を直接配信
    # =========================
    app.mount(
        "/",
        StaticFiles(directory=out_dir, html=False),
        name="static"
    )

    return app


app = create_app()
