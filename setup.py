from setuptools import setup, find_packages


setup(
    name="tfo-approval-gate",
    version="1.0.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "requests==2.32.3",
        "PyYAML==6.0.2",
    ],
    author="Approval Gate Team",
    description="Approve/cancel gate for batch jobs backed by an approval-status API",
    entry_points={
        "console_scripts": [
            "approval-gate=approval_gate.cli:main",
        ],
    },
)
