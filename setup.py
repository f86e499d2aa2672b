from setuptools import setup, find_namespace_packages

setup(
    name="agrivision-relay",
    version="0.1.0",
    description="Cold-start tolerant relay from the AgriVision frontend to hosted crop disease and pest classifiers",
    license="MIT",
    packages=find_namespace_packages(include=["class_defs", "infrastructure", "routes", "services", "utils"]),
    py_modules=["app", "config"],
    include_package_data=True,
    python_requires=">=3.8",
    install_requires=[
        # Core Framework & Web
        "Flask>=3.1.1",
        "flask-cors>=6.0.0",
        "python-dotenv>=1.1.0",
        "Werkzeug>=3.0",

        # Upstream HTTP
        "requests>=2.32.3",
        "urllib3>=2.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "flake8>=5.0",
        ],
        "test": [
            "pytest>=7.0",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
)
