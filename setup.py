from setuptools import setup, find_packages


setup(
    name='ploidyfit',
    packages=find_packages(),
    version='0.1.0',
    description='ploidyfit infers copy number alterations, normal contamination and ploidy from window read counts',
    keywords=['scientific', 'sequence analysis', 'cancer'],
    classifiers=[],
    install_requires=[
        'numpy',
        'scipy',
        'pandas',
        'pypeliner',
        'statsmodels',
        'pyyaml',
        'joblib',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={'console_scripts': ['ploidyfit = ploidyfit.ui.main:main']},
)
