"""Read-only selectors for the kernel."""

from bench_kernel.selectors.base import BaseSelector
from bench_kernel.selectors.company_selector import CompanySelector

__all__ = ["BaseSelector", "CompanySelector"]
