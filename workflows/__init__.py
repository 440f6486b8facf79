"""
Dataset workflows: multi-step pipelines with classified step failures.

Modules:
    errors: Error categories and the RetryableError / FatalError classifier
    steps: Step descriptors and the single-attempt executor
    runtime: In-process runtime that retries steps with backoff
    shared: Workflow dependencies and steps common to all pipelines
    queries: Latest-period and aggregate queries
    cars, coe, deregistrations, car_costs: One pipeline per dataset
    scheduler: APScheduler jobs that trigger the pipelines

Usage:
    from workflows.cars import run_cars_workflow
    result = await run_cars_workflow(deps)
"""
