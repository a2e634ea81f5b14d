"""Student submissions."""
