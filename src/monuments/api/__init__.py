"""AI Monument Creator — FastAPI REST API layer.

This package contains the FastAPI application, Pydantic request models, and
the create-path protection helpers.

Modules
-------
main
    FastAPI application factory, route handlers, and the ``main()`` CLI
    entry point.
models
    Pydantic models for API request validation.
protection
    Fixed-window rate limiting and reCAPTCHA verification.
"""
