from rest_framework import serializers
from .models import Category, Brand, Size, Product, ProductVariant


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ['id', 'name', 'parent', 'description', 'is_active', 'created_at', 'updated_at']


class BrandSerializer(serializers.ModelSerializer):
    class Meta:
        model = Brand
        fields = ['id', 'name', 'description', 'is_active', 'created_at', 'updated_at']


class SizeSerializer(serializers.ModelSerializer):
    class Meta:
        model = Size
        fields = ['id', 'name', 'sort_order']


class ProductVariantSerializer(serializers.ModelSerializer):
    size_names = serializers.SlugRelatedField(source='sizes', many=True, read_only=True, slug_field='name')

    class Meta:
        model = ProductVariant
        fields = ['id', 'product', 'name', 'sku', 'sizes', 'size_names', 'is_active', 'created_at', 'updated_at']


class ProductSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)
    brand_name = serializers.CharField(source='brand.name', read_only=True, default=None)
    variants = ProductVariantSerializer(many=True, read_only=True)

    class Meta:
        model = Product
        fields = ['id', 'name', 'sku', 'category', 'category_name', 'brand', 'brand_name', 'description',
                  'buying_price', 'selling_price', 'discount', 'low_stock_threshold',
                  'total_stock', 'in_stock', 'is_active', 'variants', 'created_at', 'updated_at']
        read_only_fields = ['total_stock', 'in_stock', 'created_at', 'updated_at']

    def validate(self, attrs):
        for field in ('buying_price', 'selling_price', 'discount'):
            if field in attrs and attrs[field] < 0:
                raise serializers.ValidationError({field: 'Must not be negative'})
        selling_price = attrs.get('selling_price', getattr(self.instance, 'selling_price', None))
        discount = attrs.get('discount', getattr(self.instance, 'discount', None))
        if selling_price is not None and discount is not None and discount > selling_price:
            raise serializers.ValidationError({'discount': 'Discount cannot exceed the selling price'})
        return attrs


class ProductListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for product lists"""
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)
    brand_name = serializers.CharField(source='brand.name', read_only=True, default=None)

    class Meta:
        model = Product
        fields = ['id', 'name', 'sku', 'category', 'category_name', 'brand', 'brand_name',
                  'buying_price', 'selling_price', 'discount', 'total_stock', 'in_stock', 'is_active']
