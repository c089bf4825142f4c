"""Django project package for the delivery engine."""
