# mulmo_movie/tts/__init__.py
# ============================
# Speech Synthesis Layer: mulmo-movie
#
# Public API:
#   synthesize_speech(client, text, language) → bytes
#   write_audio(path, audio)

from mulmo_movie.tts.speech_client import synthesize_speech, write_audio  # noqa: F401

__all__ = ["synthesize_speech", "write_audio"]
