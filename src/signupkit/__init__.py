"""signupkit: validation and submission pipeline for the registration flow."""

__version__ = "0.1.0"
