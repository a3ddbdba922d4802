from setuptools import setup, find_namespace_packages

setup(
    name="docker-compose-bundler",
    version="0.1.0",
    packages=find_namespace_packages(where="src", include=["dcb", "dcb.*"]),
    package_dir={"": "src"},
    install_requires=[
        "pydantic>=2.5",
        "pyyaml>=6.0",
        "click>=8.0",
        "python-dotenv>=1.0",
        "jinja2>=3.0",
        "docker>=7.0",
        "requests>=2.31",
        "rich>=13.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "docker-compose-bundler=dcb.CLI.main:main",
        ],
    },
)
