from .dsl import job, sh, checkout, environment, matrix, wf, workflow, JobBuilder, build
from .model import Environment, Job, JobStatus, RunResult, Step, Workflow
from .runner import load_workflow, run_job, run_workflow, select_jobs
from .step_workflows.rust import cargo, toolchain
from .trigger import TriggerRule

__all__ = [
    "job", "sh", "checkout", "environment", "matrix", "wf", "workflow", "JobBuilder", "build",
    "Environment", "Job", "JobStatus", "RunResult", "Step", "Workflow", "TriggerRule",
    "load_workflow", "run_job", "run_workflow", "select_jobs",
    "cargo", "toolchain",
]
