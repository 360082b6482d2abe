# mulmo_movie/__init__.py
# ========================
# mulmo-movie: resumable bilingual beat pipeline
#
# Turns a long recorded conversation into ordered "beats": silence-anchored
# segments with source text, translation, dubbed audio, a speaker label and
# an importance evaluation, persisted as mulmo_view.json.
#
# Entry point: mulmo_movie.cli.main (installed as the `mulmo-movie` command)
