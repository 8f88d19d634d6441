import setuptools

setuptools.setup(
  name='scdepth',
  description='Depth normalization of single cell counts by posterior resampling',
  version='0.1',
  license='MIT',
  install_requires=[
    'anndata',
    'numpy',
    'pandas',
    'scipy',
  ],
  extras_require={
    'test': ['pytest'],
  },
  packages=setuptools.find_packages('src'),
  package_dir={'': 'src'},
)
