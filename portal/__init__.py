### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Portal Package -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Alcada Portal Package

FastAPI application that aggregates purchase documents from several
country ERP backends and drives their multi-level approval workflow.
"""

__version__ = "1.0.0"
