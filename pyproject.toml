[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tenantscope"
version = "1.0.0"
description = "Tenant isolation for SQL access: validated tenant identifiers, request scopes and query rewriting that confines statements to one tenant."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "multi-tenant",
    "tenancy",
    "sql",
    "database",
    "isolation",
    "query-rewriting",
    "sqlite",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["tenantscope"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
