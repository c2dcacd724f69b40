"""
Conversion catalog — which source products can become which destinations.
"""

import logging

from django.db import IntegrityError, transaction

from stockledger.exceptions import ConversionNotConfigured, ValidationFault
from stockledger.models.catalog import Product
from stockledger.models.conversion import ProductConversion
from stockledger.quantities import validate_conversion_inputs

logger = logging.getLogger('stockledger')


class ConversionCatalog:
    """Registry of active ProductConversion rows."""

    @classmethod
    def lookup(cls, source_product_id, destination_product_id) -> ProductConversion:
        """
        Active conversion for an ordered pair.

        Raises:
            ConversionNotConfigured: No active mapping (expected outcome)
        """
        conversion = (
            ProductConversion.objects.active()
            .filter(
                source_product_id=source_product_id,
                destination_product_id=destination_product_id,
            )
            .first()
        )
        if conversion is None:
            raise ConversionNotConfigured(source_product_id, destination_product_id)
        return conversion

    @classmethod
    def list_by_source(cls, source_product_id) -> list[ProductConversion]:
        """Active conversions from a source product, by destination SKU."""
        return list(
            ProductConversion.objects.active()
            .filter(source_product_id=source_product_id)
            .select_related('destination_product')
            .order_by('destination_product__sku')
        )

    @classmethod
    def register(cls, source_product_id, destination_product_id,
                 conversion_factor, waste_percentage=0, notes: str = '') -> ProductConversion:
        """
        Create an active conversion.

        Raises:
            ValidationFault: Bad factor/waste, same product, unknown products,
                or an active conversion already exists for the pair
        """
        # source_quantity=1 only to reuse the factor/waste range checks
        _, factor, waste_pct = validate_conversion_inputs(1, conversion_factor, waste_percentage)

        if source_product_id == destination_product_id:
            raise ValidationFault('invalid_reference', field='destination_product', id=destination_product_id)
        found = set(
            Product.objects.filter(
                pk__in=[source_product_id, destination_product_id], is_active=True,
            ).values_list('pk', flat=True)
        )
        for role, pk in (('source_product', source_product_id), ('destination_product', destination_product_id)):
            if pk not in found:
                raise ValidationFault('invalid_reference', field=role, id=pk)

        try:
            with transaction.atomic():
                conversion = ProductConversion.objects.create(
                    source_product_id=source_product_id,
                    destination_product_id=destination_product_id,
                    conversion_factor=factor,
                    waste_percentage=waste_pct,
                    notes=notes,
                )
        except IntegrityError:
            raise ValidationFault(
                'duplicate_conversion',
                source_product_id=source_product_id,
                destination_product_id=destination_product_id,
            )

        logger.info(
            "conversion.register",
            extra={
                "conversion_id": conversion.pk,
                "source_product_id": source_product_id,
                "destination_product_id": destination_product_id,
                "factor": str(factor),
                "waste_percentage": str(waste_pct),
            },
        )
        return conversion

    @classmethod
    def deactivate(cls, conversion_id) -> ProductConversion:
        """Stop offering a conversion. Past fractionations keep their snapshot."""
        conversion = ProductConversion.objects.filter(pk=conversion_id).first()
        if conversion is None:
            raise ValidationFault('invalid_reference', field='conversion', id=conversion_id)
        if conversion.is_active:
            conversion.is_active = False
            conversion.save(update_fields=['is_active', 'updated_at'])
            logger.info("conversion.deactivate", extra={"conversion_id": conversion.pk})
        return conversion
