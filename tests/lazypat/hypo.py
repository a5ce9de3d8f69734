import os

from hypothesis import settings

# Stream properties drive many ticks per example, so no per-example deadline
settings.register_profile("lazypat-fast", max_examples=10, deadline=None)
settings.register_profile("lazypat-slow", max_examples=200, deadline=None)


def configure_hypo() -> None:
    """Load the slow profile when ``LAZYPAT_HYPO_SLOW=1``, the fast one otherwise."""
    slow = os.environ.get("LAZYPAT_HYPO_SLOW") == "1"
    settings.load_profile("lazypat-slow" if slow else "lazypat-fast")
