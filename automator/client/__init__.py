"""Python client for the generate-course API."""

from automator.client.poller import CoursePoller

__all__ = ["CoursePoller"]
