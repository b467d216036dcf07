"""Arch Linux installer (interactive, resumable).

Core design goals:
- One ordered catalogue of steps
- Progress persisted after every completed step
- Resume exactly where an aborted run stopped
- Operator-driven retry for input-sensitive steps
- Centralized logging
"""

__all__ = []
