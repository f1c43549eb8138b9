"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- storage: Google Cloud Storage bucket behind Firebase credentials
- images: Pillow-based resize and transcode
- catalog: Food and drink persistence

These wrappers translate between external formats and our domain models.
"""
