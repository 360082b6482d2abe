# mulmo_movie/nlp/__init__.py
# ============================
# Language Model Layer: mulmo-movie
#
# Responsibility:
#   - Translation between the source and target language (translator.py)
#   - Speaker identification per beat, degrading to a default label
#     (speaker_identifier.py)
#   - Batch importance evaluation of all beats (evaluator.py)
#
# Every call goes through mulmo_movie.openai_retry and validates model JSON
# with mulmo_movie.response_validator.
