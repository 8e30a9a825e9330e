# -*- coding: utf-8 -*-
"""
PlotRisk - EUDR plot ingestion, risk classification and overlay pipeline.

Subpackages:
    - plot_analysis: normalizer, risk classifier, session store, overlay
      loader, selection/export engine, service facade and REST API
    - connectors: error taxonomy for external dataset connectors
    - cli: ``plotrisk`` command line interface
"""

__version__ = "1.0.0"
