"""Scientific claim verification engine."""
