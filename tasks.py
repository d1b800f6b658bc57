"""Invoke tasks for testing, linting, and diagnosing a deployed stack.

Run tasks with: invoke TASK_NAME

Test Examples:
    invoke test              # Run all tests (cluster tests skip themselves)
    invoke test.unit         # Run unit tests only
    invoke test.cluster      # Deploy the chart and run the e2e tests
    invoke test.coverage     # Coverage report (html, term or xml)

Diagnostics Examples:
    invoke diag.health       # Check search and dashboard through port-forwards
    invoke diag.indices      # List search indices

Linting Examples:
    invoke lint.flake8       # Check code style with flake8
    invoke lint.black        # Format code with black
"""

from invoke import Collection, task

PYTEST = "uv run pytest"


@task(help={"verbose": "Show verbose output"})
def test(ctx, verbose=False):
    """Run all tests (cluster tests skip themselves without EFKCHECK_CLUSTER_TESTS=1)."""
    cmd = PYTEST
    if verbose:
        cmd += " -v"
    ctx.run(cmd)


@task
def unit(ctx):
    """Run unit tests only."""
    ctx.run(f"{PYTEST} -m unit")


@task
def integration(ctx):
    """Run structural integration tests (values files, saved objects)."""
    ctx.run(f'{PYTEST} -m "integration and not e2e"')


@task(help={"kubeconfig": "Kubeconfig to deploy with (default: current context)"})
def cluster(ctx, kubeconfig=None):
    """Deploy the operator chart and run the e2e scenarios.

    Pod logs are written under <EFKCHECK_LOG_DIR>/pods and harness logs under
    <EFKCHECK_LOG_DIR>/efkcheck (EFKCHECK_LOG_DIR defaults to logs).
    """
    env = {"EFKCHECK_CLUSTER_TESTS": "1"}
    if kubeconfig:
        env["EFKCHECK_KUBECONFIG"] = kubeconfig
    ctx.run(f"{PYTEST} -m e2e -s", env=env)


@task(help={"file": "Specific test file to run", "name": "Test name or pattern"})
def specific(ctx, file=None, name=None):
    """Run specific test file, class, or function.

    Examples:
        invoke test.specific --file tests/unit/test_eventually_engine.py
        invoke test.specific --file tests/unit/test_harness.py --name TestTeardown
    """
    if not file and not name:
        print("Error: Please specify --file and/or --name")
        return

    cmd = PYTEST
    if file:
        cmd += f" {file}"
    if name:
        cmd += f"::{name}" if file else f" -k {name}"

    ctx.run(cmd)


@task(help={"report": "html, term or xml (default: term)"})
def coverage(ctx, report="term"):
    """Run the unit suite with a coverage report."""
    kind = "term-missing" if report == "term" else report
    ctx.run(f"{PYTEST} -m unit --cov=efkcheck --cov-report={kind}")
    if report == "html":
        print("\n✓ Coverage report generated in htmlcov/index.html")


@task(help={"pattern": "Test name or pattern to filter"})
def debug_logs(ctx, pattern=None):
    """Run tests with debug-level harness logging."""
    cmd = f"{PYTEST} --log-cli-level=DEBUG"
    if pattern:
        cmd += f" -k {pattern}"
    ctx.run(cmd, env={"EFKCHECK_DEBUG": "1"})


@task
def ci(ctx):
    """Run all tests as if in CI (with XML coverage)."""
    ctx.run(f"{PYTEST} --cov=efkcheck --cov-report=xml")


# Diagnostics
@task(help={"search_url": "Search base URL", "dashboard_url": "Dashboard base URL"})
def health(ctx, search_url="http://localhost:9200", dashboard_url="http://localhost:5601"):
    """Check that a port-forwarded logging stack answers."""
    ctx.run(
        "uv run python -m efkcheck.cli_diagnose "
        f"--search-url {search_url} --dashboard-url {dashboard_url} health"
    )


@task(help={"search_url": "Search base URL"})
def indices(ctx, search_url="http://localhost:9200"):
    """List indices created by the log collector."""
    ctx.run(f"uv run python -m efkcheck.cli_diagnose --search-url {search_url} indices")


# Linting
@task(help={"src": "Path to check (default: efkcheck)"})
def flake8(ctx, src="efkcheck"):
    """Run flake8 style checker."""
    ctx.run(f"uv run flake8 {src}")


@task(help={"check": "Check only, don't modify files"})
def black(ctx, check=False):
    """Format code with black."""
    cmd = "uv run black efkcheck tests tasks.py"
    if check:
        cmd += " --check"
    ctx.run(cmd)


test_ns = Collection("test")
test_ns.add_task(test, default=True)
for t in (unit, integration, cluster, specific, coverage, debug_logs, ci):
    test_ns.add_task(t)

diag_ns = Collection("diag")
diag_ns.add_task(health)
diag_ns.add_task(indices)

lint_ns = Collection("lint")
lint_ns.add_task(flake8)
lint_ns.add_task(black)

# Register namespaces at module level for invoke to discover
ns = Collection(test_ns, diag_ns, lint_ns)
