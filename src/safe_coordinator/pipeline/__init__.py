"""Deployment and transfer pipelines."""

from .run import fetch_status, predict_deployment, run_deploy, run_transfer

__all__ = ["fetch_status", "predict_deployment", "run_deploy", "run_transfer"]
