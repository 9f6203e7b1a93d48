from setuptools import setup, find_packages

setup(
    name="mentorhub",
    version="1.0.0",
    packages=find_packages(include=["mentorhub", "mentorhub.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi",
        "uvicorn",
        "sqlalchemy>=2.0",
        "psycopg2-binary",
        "python-jose[cryptography]",
        "passlib[bcrypt]",
        "bcrypt<5",
        "python-multipart",
        "pydantic[email]>=2",
        "pydantic-settings",
        "python-dotenv",
        "alembic",
        "tzdata",
    ],
    extras_require={
        "test": ["pytest", "httpx"],
    },
)
