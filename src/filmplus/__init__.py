"""FilmPlus stream-resolution engine."""
