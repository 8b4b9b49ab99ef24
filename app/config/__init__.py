# =============================================================================
# Django Project Configuration Package
# =============================================================================
# Settings, URL routing and the ASGI/WSGI entry points.
# =============================================================================
