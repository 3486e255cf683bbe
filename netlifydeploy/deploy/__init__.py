"""Deploy pipeline: fingerprint, site lookup, polling, uploads, orchestration."""

from netlifydeploy.deploy.engine import DeployEngine, DeployResult, deploy_run

__all__ = ["DeployEngine", "DeployResult", "deploy_run"]
