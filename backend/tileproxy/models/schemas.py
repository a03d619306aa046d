"""
Modulo de esquemas (schemas) de datos del proxy.

Usamos Pydantic para describir la estructura de los datos que cruzan las
capas de la aplicacion:

- TileKey: las coordenadas de un tile, con sus rangos validos.
- HealthResponse: la respuesta del health check.

La validacion de rangos vive en el modelo (Field(ge=..., le=...)), asi que
cualquier TileKey que exista en memoria es, por construccion, valido.
"""

from pydantic import BaseModel, ConfigDict, Field

# Nivel de zoom maximo aceptado. Los servidores de tiles mas comunes
# (OpenStreetMap y derivados) llegan hasta z=19 o z=20.
MAX_ZOOM = 20


class TileKey(BaseModel):
    """
    Coordenadas de un tile en el esquema XYZ (slippy map).

    Atributos:
        z (int): Nivel de zoom, entre 0 y MAX_ZOOM.
        x (int): Columna del tile, >= 0.
        y (int): Fila del tile, >= 0.

    No se impone limite superior a x ni a y: un valor fuera de la
    rejilla del zoom simplemente hara fallar la descarga upstream.
    """

    model_config = ConfigDict(frozen=True)

    z: int = Field(ge=0, le=MAX_ZOOM)
    x: int = Field(ge=0)
    y: int = Field(ge=0)


class HealthResponse(BaseModel):
    """Respuesta del endpoint /api/health."""

    status: str
