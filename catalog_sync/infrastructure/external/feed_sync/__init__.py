"""
Pipeline de sincronizacion one-way: feed XML de catalogo -> PostgreSQL.

Este paquete esta disenado para ejecutarse como job (cron / task scheduler)
o desde la CLI, nunca en paralelo consigo mismo sin advisory lock.

Objetivos de diseno:
- Idempotencia: se puede ejecutar N veces sin duplicar datos.
- Tolerancia: un registro mal formado nunca aborta el sync completo.
- Atomicidad: cada tipo de entidad se escribe en una sola transaccion.
- Esquema explicito en PostgreSQL, creado bajo demanda.
"""
