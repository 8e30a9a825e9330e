# -*- coding: utf-8 -*-
"""REST API for the plot analysis service."""

from plotrisk.plot_analysis.api.router import router

__all__ = ["router"]
