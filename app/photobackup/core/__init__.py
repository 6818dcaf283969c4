"""Core configuration, paths and logging for photo-backup."""
