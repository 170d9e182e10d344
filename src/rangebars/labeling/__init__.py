"""Forward labeling of finished range bar sessions."""

from .forward_labeler import ForwardLabeler, forward_value

__all__ = ["ForwardLabeler", "forward_value"]
