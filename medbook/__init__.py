"""Django project package for the MedBook booking & approval engine."""
