"""Package setup for Order Tax Engine."""

from setuptools import setup, find_packages

setup(
    name="order-tax-engine",
    version="1.0.0",
    author="Taofik Bishi",
    description="Tax adjustments for multi-line e-commerce orders",
    long_description=open("README.md", encoding="utf-8").read(),
    long_description_content_type="text/markdown",
    url="https://github.com/taofikbishi/order-tax-engine",
    packages=find_packages(include=["order_tax", "order_tax.*"]),
    python_requires=">=3.10",
    install_requires=[
        "rich>=13.0",
        "pandas>=2.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "order-tax=order_tax.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Financial and Insurance Industry",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business :: Financial :: Point-Of-Sale",
    ],
    keywords="tax vat sales-tax e-commerce orders adjustments",
)
