from setuptools import setup


setup(
    name="lube-doctor",
    version="0.1.0",
    description="Local merge and scheduling tools for lubrication field-collection CSV exports",
    packages=["lube_doctor", "lube_doctor.merge_modules"],
    include_package_data=True,
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
        "streamlit",
    ],
    entry_points={
        "console_scripts": [
            "lube-doctor=lube_doctor.cli:main",
        ]
    },
)
