"""Image URL resolution and liveness probing."""

from student_home.images.liveness import LivenessChecker
from student_home.images.resolver import ImageUrlResolver, UrlChecker

__all__ = ["ImageUrlResolver", "LivenessChecker", "UrlChecker"]
