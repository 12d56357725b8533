"""Install the API key service."""

from setuptools import setup, find_packages

setup(
    name='apikeys',
    version='0.1.0',
    packages=find_packages(exclude=['*test*']),
    python_requires='>=3.8',
    install_requires=[
        "flask",
        "requests",
        "pyjwt",
        "click",
        "pytz",
        "python-json-logger",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "setup-realm=apikeys.setup_realm:setup_realm",
        ],
    },
    zip_safe=False
)
