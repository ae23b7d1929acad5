"""
SQLAlchemy models.
"""
from app.models.audiobook import Base, Audiobook, JobStatus
from app.models.listening_progress import ListeningProgress

__all__ = ['Base', 'Audiobook', 'JobStatus', 'ListeningProgress']
