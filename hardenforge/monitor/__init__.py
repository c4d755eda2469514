"""Terminal presentation for baselines, verdicts and pipeline runs.

Modules
-------
renderer
    ``MonitorRenderer`` turns baseline records, reconcile verdicts and
    ``PipelineRunResult`` objects into Rich renderables.
"""
