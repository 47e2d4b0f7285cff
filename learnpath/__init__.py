"""LearnPath: learning-path progress and assessment tracking."""

__version__ = "0.1.0"
