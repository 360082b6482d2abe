# mulmo_movie/stt/__init__.py
# ============================
# Speech-to-Text Layer: mulmo-movie
#
# One Whisper call per segment audio file, language pinned to the
# recording's source language.
#
# Public API:
#   transcribe(client, audio_path, language) → str

from mulmo_movie.stt.whisper_client import transcribe  # noqa: F401

__all__ = ["transcribe"]
