"""Adapters between scdepth.pipeline and annotated data containers"""
import anndata
import scipy.sparse as ss
import scdepth.pipeline

def normalize_anndata(adata, layer=None, depth_key=None, key_added='normalized', **kwargs):
  """Normalize raw counts in adata, and store the result in
adata.layers[key_added]

  Per-gene diagnostics are stored in adata.var, in columns prefixed by
  key_added.

  adata - anndata.AnnData (cells, genes)
  layer - layer holding raw counts (default: adata.X)
  depth_key - column of adata.obs holding depth (default: estimate from counts)
  kwargs - arguments to scdepth.pipeline.normalize

  """
  if not isinstance(adata, anndata.AnnData):
    raise ValueError(f'expected anndata.AnnData, got {type(adata)}')
  x = adata.X if layer is None else adata.layers[layer]
  depth = None if depth_key is None else adata.obs[depth_key].values
  kwargs['return_diagnostics'] = True
  # Important: AnnData is (cells, genes), but normalize expects (genes, cells)
  res, diagnostics = scdepth.pipeline.normalize(x.T, depth=depth, **kwargs)
  if ss.issparse(res):
    adata.layers[key_added] = res.T.tocsr()
  else:
    adata.layers[key_added] = res.T
  for k in diagnostics:
    adata.var[f'{key_added}_{k}'] = diagnostics[k].values
  return adata
