"""Scenario tests for meshzone-cli.

These tests walk a zone through its whole lifecycle (deploy, inspect,
teardown, redeploy) using the real commands on top of in-memory backends.
No AWS account or kumactl binary is needed.
"""
