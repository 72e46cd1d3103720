from setuptools import setup, find_namespace_packages

setup(
    name="manga_catalog_sync",
    version="0.1.0",
    packages=find_namespace_packages(include=['cli*', 'catalog*', 'api*']),
    include_package_data=True,
    install_requires=[
        "Click",
        "SQLAlchemy>=2.0",
        "requests",
        "pydantic>=2",
        "fastapi",
        "uvicorn",
    ],
    extras_require={
        "test": [
            "pytest",
            "httpx",  # FastAPI TestClient transport
        ],
    },
    entry_points={
        "console_scripts": [
            "catalog-sync=cli.main:main",
        ],
    },
)
