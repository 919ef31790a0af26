from setuptools import setup, find_packages

setup(
    name="supportdesk",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    install_requires=[
        "supabase>=2.10",
        "python-dotenv",
        "pytz",
        "tabulate",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
    entry_points={
        "console_scripts": [
            "supportdesk-monitor=supportdesk.cli.admin_monitor:main",
        ],
    },
)
