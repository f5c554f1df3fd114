"""Ratings Module: counterparty ratings after a completed engagement."""

from bench_modules.ratings.models import CompanyRating, Rating

__all__ = ["CompanyRating", "Rating"]
