# -*- coding: utf-8 -*-
"""
PlotRisk CLI
============

Command line interface for analysing plot files offline or against the
configured dataset endpoints.
"""

from plotrisk.cli.main import cli

__all__ = ["cli"]
